"""Store domain services: the transactional core behind the HTTP routers."""
