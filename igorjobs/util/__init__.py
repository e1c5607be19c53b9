"""Filesystem, process and event helpers shared by the compiler and job packages."""
