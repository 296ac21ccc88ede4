"""Provider clients, retry/failover and prompts."""
