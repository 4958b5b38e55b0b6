from .settings import Config
