"""Diffusion equation simulation."""

from anysim.diffusion.diffuse_sim import DiffuseSim, diffusion_potential

__all__ = ["DiffuseSim", "diffusion_potential"]
