"""
Core gallery logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or httpx. Key conventions and the listing order can be tested in isolation.
"""
