"""Example models built on the simkernel kernel."""
