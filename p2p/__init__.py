"""
kadmesh P2P Layer

Components:
- DHT: Kademlia nodes, routing tables and the network that joins them
- CLI: Command-line simulator for in-process networks
"""
