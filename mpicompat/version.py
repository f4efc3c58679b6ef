# This file is automatically generated by setup.py
# do not edit this file manually.

__version__ = '0.4.0'
