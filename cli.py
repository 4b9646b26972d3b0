#!/usr/bin/env python3
from barycenter.orchestrator import main


if __name__ == "__main__":
    main()
