from .network import DenseLayer, LayerGradients, Network, build_network

__all__ = ["DenseLayer", "LayerGradients", "Network", "build_network"]
