"""
An identification of the vertex package version.  Note that this module file gets 
(over-) written by the build process.  
"""

__version__ = "0.1.0"
