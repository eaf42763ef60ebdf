"""Kernel services -- imperative shell infrastructure shared by modules."""
