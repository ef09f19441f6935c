"""Manifest patching for the deployed package.json."""
