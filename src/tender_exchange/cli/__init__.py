"""Command-line interface for Tender Exchange"""
