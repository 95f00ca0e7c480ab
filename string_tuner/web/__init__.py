"""Browser front end for the tuner: websocket streaming and recording analysis."""
