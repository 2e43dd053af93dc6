"""
Wingmann Engine - Services

Record store, export generation, submission intake and listing.
"""
