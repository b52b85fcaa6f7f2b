from . import ingest, app
