"""
Concrete autograd runtime: NumPy tensor backend, graph mode, values,
invocation entry points and backward traversal.
"""
