"""
Kopf handlers, one module per custom resource kind.

Importing a module registers its handlers with kopf.
"""
