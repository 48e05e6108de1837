"""On-chain collaborators reached through web3."""
