"""
Run the CampusDesk API with uvicorn.

Usage:
    python run.py
    python run.py --reload            # Development mode with auto-reload
    python run.py --remote memory     # In-process replica instead of MongoDB
    python run.py --remote none       # Local-only mode
"""
import argparse
import os
import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the CampusDesk API server")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )
    parser.add_argument(
        "--remote",
        choices=["mongo", "memory", "none"],
        default=None,
        help="Remote replica backend (default: REMOTE_BACKEND or mongo)"
    )
    parser.add_argument(
        "--cache-path",
        type=str,
        default=None,
        help="Directory for the local cache (default: LOCAL_CACHE_PATH)"
    )
    
    args = parser.parse_args()
    
    # Settings are read from the environment when the app module is imported
    if args.remote:
        os.environ["REMOTE_BACKEND"] = args.remote
    if args.cache_path:
        os.environ["LOCAL_CACHE_PATH"] = args.cache_path
    
    print("Starting CampusDesk API server...")
    print(f"  Host: {args.host}")
    print(f"  Port: {args.port}")
    print(f"  Reload: {args.reload}")
    print(f"  Remote: {os.environ.get('REMOTE_BACKEND', 'mongo')}")
    print()
    
    # One worker: the local cache and session slot are process-local
    uvicorn.run(
        "campusdesk.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1
    )


if __name__ == "__main__":
    main()
