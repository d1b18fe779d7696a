"""Mod portal access: catalog client and changelog parsing."""
