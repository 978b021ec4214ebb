"""On-demand single-use GitHub Actions runners on AWS EC2."""
