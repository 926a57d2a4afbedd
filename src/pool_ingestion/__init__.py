"""
Remote read boundary for the pool client.

Ingestion fetches raw integer reads from the pool service, normalises them
and emits PoolTick objects. It never imports amm_engine.
"""
