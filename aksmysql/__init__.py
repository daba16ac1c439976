"""Tooling that wires AKS workload identity to Azure Database for MySQL."""
