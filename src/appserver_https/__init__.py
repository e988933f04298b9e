"""
appserver-https: unattended, idempotent TLS and deployment convergence for application servers.

Two independent flows are provided:

- `appserver_https.tomcat` rewrites a Tomcat ``server.xml`` to install or update an
  HTTPS connector without disturbing operator settings.
- `appserver_https.wildfly` drives the WildFly / JBoss EAP management API to converge
  the Elytron key-store -> key-manager -> server-ssl-context chain and the state of a
  deployment.

Both read their options from environment variables; see `appserver_https.config`.
"""

__version__ = "0.1.0"
