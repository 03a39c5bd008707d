"""MineChat protocol pieces shared by the client: envelope codec, errors, logging."""
