from cvewatch.__version__ import __version__
