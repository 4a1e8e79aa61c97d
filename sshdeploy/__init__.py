"""
sshdeploy  —  deploy a local directory tree to a server over SFTP/SSH

Only changed files are uploaded, into a staging directory that is merged
into place in one step once everything has arrived.
"""
__version__ = "1.0.0"

__all__ = ["__version__"]
