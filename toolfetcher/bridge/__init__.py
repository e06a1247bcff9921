"""Bridge layer between toolfetcher and remote hosts.

Modules
-------
github
    ``GitHubClient`` for release and branch metadata queries plus streamed
    HTTP downloads, and the URL builders for GitHub archive/raw endpoints.
"""
