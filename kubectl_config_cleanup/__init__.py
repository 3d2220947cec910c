"""Remove kubeconfig contexts along with the clusters and users they leave behind."""

__version__ = "1.0.0"
