"""Attachment upload module.

Files selected for a memory are validated (type allow-list, 10MB ceiling),
large images are downscaled, and the orchestrator uploads them one after
another to the configured blob store while reporting weighted progress.
"""
