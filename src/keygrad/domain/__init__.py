"""
Domain layer of KeyGrad: backend-agnostic contracts.

This package holds the interfaces and value types that the infrastructure
layer implements (tensor protocol, function protocol, graph identifiers)
and the error hierarchy shared by every layer.
"""
