"""web3 adapters for the utility and value chains."""
