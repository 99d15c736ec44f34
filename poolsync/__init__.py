"""poolsync: load balancer pool membership reconciler.

Keeps a remote shared load balancer in step with service instance lifecycle:
 - instance up: ensure the balancer and the port's pool exist, add the node
 - instance down: remove the node, reclaim empty pools and balancers

No reconciliation state is kept locally; every call re-reads the control plane.
"""
