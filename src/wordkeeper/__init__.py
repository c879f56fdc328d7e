from wordkeeper.consts import VERSION

__version__ = VERSION
