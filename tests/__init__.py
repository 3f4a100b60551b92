"""Test package for retrievald"""
