"""
The MODEL layer contains pure data structures and the spatial index.
It has NO knowledge of the Visualization (PyVista).
It deals with Features, Spaces, Clouds and the point-record file format.
"""
