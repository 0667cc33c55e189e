"""
Infrastructure layer of KeyGrad: the NumPy-backed tensor, the autograd
engine, leak detection, numerical differentiation and the gradient-check
harness built on top of them.
"""
