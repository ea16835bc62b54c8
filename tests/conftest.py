import os

# settings loads its JSON config at import; the shipped example is a valid one.
os.environ.setdefault(
    "SPACEWATCH_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config.example.json"),
)
