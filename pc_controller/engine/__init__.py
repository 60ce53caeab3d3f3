"""Convergence engine: step execution, cycle accounting and the controller loop."""
