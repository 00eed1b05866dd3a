"""CLI commands"""
