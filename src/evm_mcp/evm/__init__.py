"""EVM components: connections, name resolution, transfers, reads, bridge and swap pipelines."""
