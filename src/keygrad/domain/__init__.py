"""
Backend-agnostic autograd contracts: tensor and value protocols, the
operation base class and the error taxonomy.
"""
