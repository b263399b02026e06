"""Remote video API providers.

Each provider module wraps one vendor's async job API:
  POST create task → poll status → download content
"""
