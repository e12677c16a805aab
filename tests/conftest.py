def pytest_addoption(parser):
    group = parser.getgroup("thds.lease")
    group.addoption(
        "--redis-url",
        action="store",
        type=str,
        default="",
        help="A Redis server the integration tests may scribble on, e.g. redis://localhost:6379/15",
    )
