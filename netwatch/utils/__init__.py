from . import config, logger, normalization
