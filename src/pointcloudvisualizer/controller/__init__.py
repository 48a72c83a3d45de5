"""
The CONTROLLER layer owns every cloud of a session, prepares them for render
and resolves picks coming back from the viewer.
"""
