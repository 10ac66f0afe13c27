"""
antisplit: Reassemble split Android applications into a single installable APK.

Takes an XAPK/ZIP container holding a base APK plus density, ABI and locale
split APKs, validates that the members belong together, merges their content
and repackages the result as one archive ready for signing.
"""

__version__ = "1.0.0"
__author__ = "antisplit Team"
