"""
The VIEW layer wraps PyVista: one subplot per viewport, key events and point picking.
"""
