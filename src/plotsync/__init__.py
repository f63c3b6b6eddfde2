"""Plot data synchronization and geospatial rendering engine.

Loads land parcels from a remote source, validates their geometry against
the operating region, derives map render instructions, and coordinates
optimistic plot reservations.
"""

__version__ = "0.1.0"
