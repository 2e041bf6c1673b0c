"""doctask — motor de presentación de tareas de documentos."""

__version__ = "0.1.0"
