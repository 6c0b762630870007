"""Structure / level / space tree and duplicate synchronization."""
